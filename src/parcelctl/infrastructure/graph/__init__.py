"""Group/parcel dependency graph and its structural checks."""
