"""Demo users, customers, SOP documents and quick replies for a fresh store."""
import logging
from datetime import datetime

from src.support_hub.database.store import SessionStore
from src.support_hub.models.entities import (
    Customer,
    CustomerStatus,
    QuickReply,
    SOPDocument,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)


PAYMENT_SOP = """## When customer reports payment not processed:
1. Verify customer identity using order number and email
2. Check payment status in the admin panel
3. If payment shows "pending", explain 24-48 hour processing time
4. If payment failed, guide customer to retry payment
5. For successful payments not reflected, escalate to senior agent"""

REFUND_SOP = """## Refund Processing Guidelines:
1. Check order date (must be within 30 days)
2. Verify item condition requirements
3. Process refund through admin panel
4. Send confirmation email to customer
5. Update order status

### Refund Timeframes:
- Credit card: 3-5 business days
- Digital wallet: 1-2 business days
- Bank transfer: 5-7 business days"""

SHIPPING_SOP = """## Handling Shipping Delays:
1. Check tracking information in system
2. Provide realistic delivery estimates
3. Offer compensation if delay exceeds 7 days
4. Update customer with regular communication
5. Escalate to logistics team if needed"""


async def seed_demo_data(store: SessionStore) -> None:
    """Populate an empty store with the demo support team"""
    if await store.get_user_by_username("admin"):
        logger.info("Store already seeded, skipping demo data")
        return

    admin = await store.create_user(User(
        username="admin", password="admin123", role=UserRole.ADMIN,
        name="Sarah Chen", email="sarah.chen@company.com", is_online=True,
    ))
    team_lead = await store.create_user(User(
        username="teamlead1", password="password123",
        role=UserRole.TEAM_LEAD, name="Jennifer Park",
        email="jennifer.park@company.com", is_online=True,
    ))
    await store.create_user(User(
        username="senior1", password="password123",
        role=UserRole.SENIOR_AGENT, name="David Kim",
        email="david.kim@company.com", is_online=True,
    ))
    for username, name, email in [
        ("agent1", "Mike Thompson", "mike.thompson@company.com"),
        ("agent2", "Anna Martinez", "anna.martinez@company.com"),
    ]:
        await store.create_user(User(
            username=username, password="password123", role=UserRole.AGENT,
            name=name, email=email, is_online=True,
        ))

    await store.create_customer(Customer(
        name="Emma Wilson", email="emma.wilson@email.com",
        customer_code="CUS-2024-5678", member_since=datetime(2023, 1, 15),
        total_orders=24, status=CustomerStatus.PREMIUM,
    ))
    await store.create_customer(Customer(
        name="Alex Kumar", email="alex.kumar@email.com",
        customer_code="CUS-2024-1234", member_since=datetime(2023, 3, 20),
        total_orders=12, status=CustomerStatus.REGULAR,
    ))

    await store.create_sop(SOPDocument(
        title="Payment Issue Resolution", category="Payment & Billing",
        content=PAYMENT_SOP,
        keywords=["payment", "billing", "transaction", "failed payment",
                  "pending"],
        version="2.1", uploaded_by=admin.id,
    ))
    await store.create_sop(SOPDocument(
        title="Refund Policy Guidelines", category="Payment & Billing",
        content=REFUND_SOP,
        keywords=["refund", "return", "money back", "cancellation"],
        version="1.5", uploaded_by=admin.id,
    ))
    await store.create_sop(SOPDocument(
        title="Shipping Delay Procedures", category="Shipping & Returns",
        content=SHIPPING_SOP,
        keywords=["shipping", "delivery", "delay", "tracking", "logistics"],
        uploaded_by=team_lead.id,
    ))

    for title, content, category in [
        ("Welcome Message",
         "Hello! Thank you for contacting our support team. "
         "How can I assist you today?",
         "greetings"),
        ("Order Status Check",
         "I'll be happy to check your order status. "
         "Could you please provide your order number?",
         "orders"),
        ("Escalation Notice",
         "I'm transferring your chat to a senior agent who can better assist "
         "you with this issue. Please hold on for a moment.",
         "escalation"),
    ]:
        await store.create_quick_reply(QuickReply(
            title=title, content=content, category=category,
            created_by=admin.id,
        ))
    logger.info("Seeded demo support team and knowledge base")
