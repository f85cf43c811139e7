"""Attendance: punch pairing, DTR computation, and cutoff aggregation."""
