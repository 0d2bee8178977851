import copy

# Seed catalog for the mock product endpoints.
PRODUCTS = [
    {"id": "1", "name": "Wireless Bluetooth Headphones", "price": 199.99, "category": "electronics",
     "description": "Noise-cancelling wireless headphones with 30-hour battery life.",
     "rating": 4.8, "in_stock": True, "stock_count": 45, "featured": True},
    {"id": "2", "name": "Smart Fitness Watch", "price": 299.99, "category": "electronics",
     "description": "Fitness tracking smartwatch with heart rate monitoring.",
     "rating": 4.6, "in_stock": True, "stock_count": 23, "featured": True},
    {"id": "3", "name": "Premium Cotton T-Shirt", "price": 29.99, "category": "clothing",
     "description": "Soft organic cotton t-shirt.",
     "rating": 4.4, "in_stock": True, "stock_count": 156, "featured": False},
    {"id": "4", "name": "Modern Table Lamp", "price": 89.99, "category": "home-garden",
     "description": "Minimalist LED table lamp with adjustable brightness.",
     "rating": 4.7, "in_stock": True, "stock_count": 28, "featured": False},
    {"id": "5", "name": "Running Shoes", "price": 129.99, "category": "sports",
     "description": "Lightweight running shoes with responsive cushioning.",
     "rating": 4.5, "in_stock": True, "stock_count": 67, "featured": True},
    {"id": "6", "name": "Smartphone 128GB", "price": 699.99, "category": "electronics",
     "description": "Flagship smartphone with triple camera system.",
     "rating": 4.9, "in_stock": True, "stock_count": 12, "featured": True},
    {"id": "7", "name": "Ankara Print Maxi Dress", "price": 89.99, "category": "african-traditional-dresses",
     "description": "Vibrant Ankara print maxi dress.",
     "rating": 4.9, "in_stock": True, "stock_count": 25, "featured": False},
]

SORTS = {
    "price-low": (lambda p: p["price"], False),
    "price-high": (lambda p: p["price"], True),
    "name-asc": (lambda p: p["name"], False),
    "name-desc": (lambda p: p["name"], True),
    "rating": (lambda p: p["rating"], True),
}


def seed_products() -> dict:
    return {p["id"]: copy.deepcopy(p) for p in PRODUCTS}


def filter_products(products, search=None, min_price=None, max_price=None, sort=None) -> list:
    result = list(products)
    if search:
        needle = search.lower()
        result = [p for p in result if needle in p["name"].lower() or needle in p["description"].lower()]
    if min_price is not None:
        result = [p for p in result if p["price"] >= min_price]
    if max_price is not None:
        result = [p for p in result if p["price"] <= max_price]
    if sort in SORTS:
        key, reverse = SORTS[sort]
        result.sort(key=key, reverse=reverse)
    return result
