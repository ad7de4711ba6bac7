"""Business clients (customers)"""
