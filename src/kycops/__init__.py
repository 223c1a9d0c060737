"""
kycops: signed client for a KYC/AML verification API.

Signs outbound API requests with HMAC-SHA256 and verifies inbound webhook
deliveries with HMAC-SHA1.
"""

__version__ = "1.0.0"
