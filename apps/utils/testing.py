"""
Small builders shared by the app test modules.
"""
from decimal import Decimal

from django.contrib.auth import get_user_model

User = get_user_model()


def make_user(username="customer", **extra):
    extra.setdefault("email", f"{username}@example.com")
    return User.objects.create_user(username=username, password="pass12345", **extra)


def make_location(governorate_name="Cairo", code="CAI"):
    from apps.shipping.models import Center, Governorate, Village

    governorate = Governorate.objects.create(name=governorate_name, code=code)
    center = Center.objects.create(governorate=governorate, name=f"{governorate_name} Center", code=f"{code}-C")
    village = Village.objects.create(center=center, name=f"{governorate_name} Village", code=f"{code}-V")
    return governorate, center, village


def make_address(user, governorate, center=None, village=None, **extra):
    from apps.customers.models import Address

    return Address.objects.create(
        user=user,
        recipient_name=extra.pop("recipient_name", "Mona Adel"),
        phone=extra.pop("phone", "01000000000"),
        street=extra.pop("street", "12 Tahrir St"),
        governorate=governorate,
        center=center,
        village=village,
        **extra,
    )


def make_product(name="Classic Sneaker", price="100.00", stock=10, **extra):
    from apps.catalog.models import Brand, Category, Product

    brand, _ = Brand.objects.get_or_create(name="Soleva")
    category, _ = Category.objects.get_or_create(name="Sneakers")
    return Product.objects.create(
        name=name,
        description=extra.pop("description", "Leather sneaker"),
        images=extra.pop("images", ["https://cdn.example.com/sneaker.jpg"]),
        brand=brand,
        category=category,
        base_price=Decimal(price),
        stock_quantity=stock,
        **extra,
    )


def make_variant(product, stock=5, price_delta="0.00", **extra):
    from apps.catalog.models import ProductVariant

    return ProductVariant.objects.create(
        product=product,
        color=extra.pop("color", "Black"),
        size=extra.pop("size", "42"),
        material=extra.pop("material", "Leather"),
        price_delta=Decimal(price_delta),
        stock_quantity=stock,
        **extra,
    )


def add_to_cart(user, product, quantity=1, variant=None):
    from apps.orders.models import CartItem

    return CartItem.objects.create(user=user, product=product, variant=variant, quantity=quantity)
