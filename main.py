"""Simple entrypoint to browse the bundled catalog and run a simulated scan locally."""

import asyncio

from storefront_app.app import StorefrontApp


def main() -> None:
    app = StorefrontApp()
    for product in app.search_products("", {"sortBy": "newest", "stockStatus": "inStock"}):
        print(f"{product.product_id:>3}  {product.name:<32} {product.price:>9}  stock={product.stock}")

    session = asyncio.run(app.captures.run("local-demo", "Mozilla/5.0 (X11; Linux x86_64)"))
    print(f"capture {session.session_id}: {session.status.value}")


if __name__ == "__main__":
    main()
