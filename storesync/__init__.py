"""StoreSync: bidirectional sync between local records and WooCommerce stores"""

__version__ = "1.0.0"
