"""Cancellation vouchers and customer booking blocks"""
