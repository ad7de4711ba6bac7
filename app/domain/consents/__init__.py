"""Consent templates, signatures and signed PDFs"""
