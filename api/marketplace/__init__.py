"""G-TEAD Commander's Marketplace API."""
