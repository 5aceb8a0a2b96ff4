"""Lending Desk - Services Package

This package contains modules that talk to the outside world:
- SMS delivery (Twilio over httpx)
- Background scheduling of the sweeper passes (APScheduler)
"""
