"""
Marketplace app: shops, infrastructure providers and their connections.

Related apps:
    - authentication: User model owning shops and providers
    - core: services, exceptions, secret store, rate limiting

Usage:
    from marketplace.services import ConnectionLifecycleManager, ShopParams

    manager = ConnectionLifecycleManager.from_settings()
    result = manager.create_shop(user, ShopParams(name="Corner Coffee", provider_id=provider.id))
"""
