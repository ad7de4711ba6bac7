"""Specialist commissions: rules, accruals and payout requests"""
