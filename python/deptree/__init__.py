"""deptree - canonical dependency trees from build tool graph exports."""

__version__ = "1.0.0"
