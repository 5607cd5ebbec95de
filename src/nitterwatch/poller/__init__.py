"""Background polling of watched feeds."""
