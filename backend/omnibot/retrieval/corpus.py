"""Fixed in-memory eBusiness corpus served by the retriever."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Document:
    id: int
    title: str
    content: str


DOCUMENTS: tuple[Document, ...] = (
    Document(
        id=1,
        title="E-commerce Fundamentals",
        content=(
            "E-commerce involves buying and selling goods and services online. "
            "Key components include online stores, payment processing, shipping "
            "logistics, and customer service. Popular platforms include Shopify, "
            "WooCommerce, and Amazon."
        ),
    ),
    Document(
        id=2,
        title="Digital Marketing Strategies",
        content=(
            "Digital marketing encompasses SEO, social media marketing, email "
            "campaigns, PPC advertising, and content marketing. Effective strategies "
            "include targeting the right audience, creating valuable content, and "
            "measuring ROI through analytics."
        ),
    ),
    Document(
        id=3,
        title="Online Business Models",
        content=(
            "Common e-commerce business models include B2C (business-to-consumer), "
            "B2B (business-to-business), C2C (consumer-to-consumer), and D2C "
            "(direct-to-consumer). Each model has different customer acquisition "
            "and retention strategies."
        ),
    ),
    Document(
        id=4,
        title="Payment Processing",
        content=(
            "Online payment methods include credit cards, PayPal, Stripe, Apple Pay, "
            "and cryptocurrency. Security is crucial with PCI compliance, SSL "
            "certificates, and fraud prevention measures."
        ),
    ),
    Document(
        id=5,
        title="Customer Service in E-commerce",
        content=(
            "Excellent customer service includes fast response times, multiple "
            "contact channels (chat, email, phone), easy returns policies, and "
            "proactive communication. Tools like Zendesk and Intercom help manage "
            "customer interactions."
        ),
    ),
    Document(
        id=6,
        title="E-commerce Analytics",
        content=(
            "Key metrics to track include conversion rate, average order value, "
            "customer acquisition cost, lifetime value, bounce rate, and cart "
            "abandonment rate. Tools like Google Analytics and specialized "
            "e-commerce analytics platforms provide insights."
        ),
    ),
    Document(
        id=7,
        title="Mobile Commerce",
        content=(
            "Mobile commerce is growing rapidly with responsive design, mobile apps, "
            "and mobile payment solutions. Mobile users expect fast loading times, "
            "easy navigation, and seamless checkout experiences."
        ),
    ),
    Document(
        id=8,
        title="Supply Chain Management",
        content=(
            "Effective supply chain management includes inventory tracking, order "
            "fulfillment, shipping optimization, and vendor relationships. Tools "
            "like ShipBob and Oberlo help streamline operations."
        ),
    ),
    Document(
        id=9,
        title="Legal Considerations",
        content=(
            "E-commerce businesses must comply with consumer protection laws, data "
            "privacy regulations (GDPR, CCPA), tax collection, and international "
            "trade laws. Legal consultation is essential for compliance."
        ),
    ),
    Document(
        id=10,
        title="Scaling E-commerce Business",
        content=(
            "Scaling strategies include automating processes, expanding product "
            "lines, entering new markets, and building strategic partnerships. "
            "Technology infrastructure must support growth with scalable hosting "
            "and databases."
        ),
    ),
)
