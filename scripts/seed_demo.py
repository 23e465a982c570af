#!/usr/bin/env python3
"""
Seed script to create demo tables, menu, promotions and closure dates
"""

import asyncio
import uuid
from datetime import date, timedelta


async def seed_demo_data():
    """Seed demo data for development"""
    from sqlalchemy import select

    from tablehaus.database import SessionLocal, engine, Base
    from tablehaus.models import BlockedDate, DiningTable, MenuItem, Promotion

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        # Check if demo tables already exist
        result = await db.execute(select(DiningTable).where(DiningTable.name == "T1"))
        existing = result.scalar_one_or_none()

        if existing:
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo tables...")

        layout = [
            ("T1", 2, 40, 40), ("T2", 2, 140, 40), ("T3", 4, 240, 40),
            ("T4", 4, 40, 160), ("T5", 6, 140, 160), ("T6", 8, 260, 160),
        ]
        for name, capacity, x, y in layout:
            db.add(DiningTable(
                id=uuid.uuid4(),
                name=name,
                capacity=capacity,
                position_x=x,
                position_y=y,
            ))

        print("Creating menu items...")

        # Prices in satang
        menu_items = [
            {
                "name": "Wagyu Ribeye",
                "description": "A5 ribeye, grilled to order",
                "price": 189000,
                "category": "Mains",
                "option_groups": [
                    {
                        "name": "Doneness",
                        "required": True,
                        "options": [
                            {"name": "Rare", "price": 0},
                            {"name": "Medium Rare", "price": 0},
                            {"name": "Medium", "price": 0},
                        ],
                    },
                    {
                        "name": "Sauce",
                        "required": False,
                        "options": [
                            {"name": "Peppercorn", "price": 0},
                            {"name": "Truffle Butter", "price": 15000},
                        ],
                    },
                ],
                "sort_order": 1,
            },
            {
                "name": "Tomahawk for Two",
                "description": "1.2kg tomahawk, carved at the table",
                "price": 350000,
                "category": "Mains",
                "sort_order": 2,
            },
            {
                "name": "Caesar Salad",
                "description": "Romaine, parmesan, anchovy dressing",
                "price": 32000,
                "category": "Starters",
                "sort_order": 3,
            },
            {
                "name": "Truffle Fries",
                "price": 22000,
                "category": "Sides",
                "sort_order": 4,
            },
            {
                "name": "Lemonade",
                "price": 9000,
                "category": "Drinks",
                "option_groups": [
                    {
                        "name": "Size",
                        "required": True,
                        "options": [
                            {"name": "Regular", "price": 0},
                            {"name": "Large", "price": 3000},
                        ],
                    },
                ],
                "sort_order": 5,
            },
        ]
        for item_data in menu_items:
            db.add(MenuItem(id=uuid.uuid4(), **item_data))

        print("Creating promotions...")

        db.add(Promotion(
            id=uuid.uuid4(),
            code="SAVE10",
            discount_type="percent",
            discount_value=10,
            min_subtotal=0,
        ))
        db.add(Promotion(
            id=uuid.uuid4(),
            code="WELCOME500",
            discount_type="fixed",
            discount_value=50000,
            min_subtotal=200000,
            channels=["dine_in"],
            usage_limit=100,
        ))

        print("Creating closure dates...")

        db.add(BlockedDate(
            id=uuid.uuid4(),
            date=date.today() + timedelta(days=14),
            reason="Staff training",
        ))

        await db.commit()

        print("\n" + "=" * 50)
        print("Demo data created successfully!")
        print("=" * 50)
        print(f"\nTables: {len(layout)}")
        print(f"Menu items: {len(menu_items)}")
        print("Promotions: SAVE10, WELCOME500")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
