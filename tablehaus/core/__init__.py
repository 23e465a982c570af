"""Booking engine core: availability, promotions, commit, lifecycle and the booking wizard"""
