"""Request authentication for the membership service (Stripe webhook signatures)."""
