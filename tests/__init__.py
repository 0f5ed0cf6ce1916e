"""
Test suite for the MedBook Appointment Service.

Contains unit and integration tests for slot reservation and cancellation.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
