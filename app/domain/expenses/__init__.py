"""Business expenses, categories and financial movements"""
