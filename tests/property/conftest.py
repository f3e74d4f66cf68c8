"""Hypothesis strategies for property testing.

Provides reusable composite strategies for generating checkout sessions
and webhook bodies that match Stripe's checkout.session.completed shape.
"""

from hypothesis import strategies as st

EMAIL_LOCATIONS = (
    "customer_details",
    "customer_email",
    "customer",
    "payment_intent",
    "metadata",
)


@st.composite
def email_address(draw):
    """Generate a plausible member email address."""
    local = draw(
        st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789._", min_size=1, max_size=20)
    )
    domain = draw(st.sampled_from(["example.org", "andar.example", "mail.example.fr"]))
    return f"{local}@{domain}"


@st.composite
def session_with_emails(draw):
    """Generate a checkout session with an email in a random subset of locations.

    Returns:
        tuple: (session dict, {location: email} for the locations that were set)
    """
    chosen = draw(st.lists(st.sampled_from(EMAIL_LOCATIONS), unique=True))
    emails = {location: draw(email_address()) for location in chosen}

    session = {
        "id": draw(st.from_regex(r"cs_test_[a-zA-Z0-9]{8}", fullmatch=True)),
        "amount_total": draw(st.sampled_from([500, 3200, 5000])),
        "metadata": {},
    }
    if "customer_details" in emails:
        session["customer_details"] = {"email": emails["customer_details"]}
    if "customer_email" in emails:
        session["customer_email"] = emails["customer_email"]
    if "customer" in emails:
        session["customer"] = {"id": "cus_1", "email": emails["customer"]}
    if "payment_intent" in emails:
        session["payment_intent"] = {"id": "pi_1", "receipt_email": emails["payment_intent"]}
    if "metadata" in emails:
        session["metadata"]["email"] = emails["metadata"]

    return session, emails


@st.composite
def membership_metadata(draw):
    """Generate a membershipType value, possibly odd-cased or missing."""
    tier = draw(st.sampled_from(["digital", "classic", "premium"]))
    casing = draw(st.sampled_from([str.lower, str.upper, str.title]))
    return casing(tier)
