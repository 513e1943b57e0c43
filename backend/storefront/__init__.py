"""
Storefront checkout backend.

Crypto payments for shareable product links: the buyer's wallet pays the
seller directly, the payment is verified on chain and an order is recorded.
"""
