"""Philippine statutory payroll engine."""

__version__ = "1.0.0"
