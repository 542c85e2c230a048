"""
Integration modules for paybridge

Contains adapters and boundaries for external systems:
- Payment gateways (eSewa, Khalti, Stripe)
- Inbound provider webhooks (signature verification, parsing)
"""
