"""parcelctl: deterministic group/parcel resolution for package invoices."""

__version__ = "0.1.0"
