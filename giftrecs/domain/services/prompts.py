from typing import List

from giftrecs.domain.models.product import RankedProduct

DEFAULT_PREFERENCE_SUMMARY = "general gift shopper"

SYSTEM_PROMPT = "You only respond with strict JSON. No extra commentary."


def preference_summary(interests: List[str]) -> str:
    cleaned = [i.strip() for i in interests if i and i.strip()]
    return ", ".join(cleaned) if cleaned else DEFAULT_PREFERENCE_SUMMARY


def candidate_line(index: int, product: RankedProduct) -> str:
    price = f"{product.price:.2f} {product.currency or 'USD'}"
    categories = ", ".join(product.categories[:5])
    return f"{index}. id={product.product_id} | title={product.title} | price={price} | categories={categories}"


def rerank_task(products: List[RankedProduct], interests: List[str]) -> str:
    items = "\n".join(candidate_line(i, p) for i, p in enumerate(products, start=1))
    return (
        f"You are re-ranking gift recommendations. The user cares about: {preference_summary(interests)}.\n"
        'Return the best order of the items below as JSON with key "order" that contains an array of '
        "item ids in your recommended order. You may optionally drop items that are irrelevant, "
        "but keep at least 10 when possible.\n"
        'OUTPUT FORMAT: {"order":["<id>","<id>"]}\n'
        f"Items:\n{items}"
    )
