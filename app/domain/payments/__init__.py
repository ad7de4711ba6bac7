"""Owner-facing subscription payments and receipts"""
