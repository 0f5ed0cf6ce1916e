"""
MedBook Appointment Service

A FastAPI-based booking backend for medical appointments: patients reserve
time slots with doctors, and a slot is never booked twice.
"""

__version__ = "1.0.0"
