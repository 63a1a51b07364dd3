# app/services/container.py
"""
Explicitly constructed service graph, one per application instance.

`create_app` stores the container on `app.state.services`; routers reach it
through `get_services`. Nothing here is a module-level singleton, so tests can
build as many isolated graphs as they like.
"""
from dataclasses import dataclass
from functools import partial
from typing import Optional

from fastapi import Request

from app.config import Settings, get_db, get_firebase_app
from app.core.auth import issue_session_token
from app.integrations.sms_gateway import SmsGateway, build_sms_gateway
from app.repositories import firestore as fs
from app.repositories import memory as mem
from app.repositories.base import (
    CategoryRepository,
    OrderRepository,
    ProductRepository,
    UserRepository,
)
from app.services.cart_service import CartService
from app.services.catalog_service import CatalogService
from app.services.checkout import CheckoutService
from app.services.notifier import FanoutNotifier, FcmOrderNotifier, LocalOrderEvents, Notifier
from app.services.order_lifecycle import OrderLifecycle
from app.services.otp_service import OtpService
from app.services.promo_service import PromoService
from app.services.user_service import UserService


@dataclass
class ServiceContainer:
    settings: Settings
    products: ProductRepository
    categories: CategoryRepository
    users: UserRepository
    orders: OrderRepository
    catalog: CatalogService
    promos: PromoService
    carts: CartService
    lifecycle: OrderLifecycle
    checkout: CheckoutService
    otp: OtpService
    profiles: UserService
    events: LocalOrderEvents


def _assemble(cfg: Settings, *, products, categories, carts, orders, promos, users, otps,
              sms: SmsGateway, events: LocalOrderEvents, notifier: Notifier) -> ServiceContainer:
    promo_service = PromoService(promos)
    cart_service = CartService(carts, products, promo_service, cfg.delivery_fee)
    return ServiceContainer(
        settings=cfg,
        products=products,
        categories=categories,
        users=users,
        orders=orders,
        catalog=CatalogService(products, categories),
        promos=promo_service,
        carts=cart_service,
        lifecycle=OrderLifecycle(orders, notifier),
        checkout=CheckoutService(cart_service, products, orders, notifier, cfg.default_eta_minutes),
        otp=OtpService(otps, users, sms, partial(issue_session_token, cfg=cfg), cfg),
        profiles=UserService(users),
        events=events,
    )


def build_memory_services(cfg: Settings, seed: bool = True, sms: Optional[SmsGateway] = None) -> ServiceContainer:
    """In-process stores; `seed` loads the sample catalogue, promo codes and staff users."""
    events = LocalOrderEvents()
    return _assemble(
        cfg,
        products=mem.MemoryProductRepository(mem.sample_products() if seed else None),
        categories=mem.MemoryCategoryRepository(mem.sample_categories() if seed else None),
        carts=mem.MemoryCartRepository(),
        orders=mem.MemoryOrderRepository(),
        promos=mem.MemoryPromoRepository(mem.sample_promos() if seed else None),
        users=mem.MemoryUserRepository(mem.sample_users() if seed else None),
        otps=mem.MemoryOtpRepository(),
        sms=sms or build_sms_gateway(cfg),
        events=events,
        notifier=events,
    )


def build_firestore_services(cfg: Settings) -> ServiceContainer:
    db = get_db()
    events = LocalOrderEvents()
    return _assemble(
        cfg,
        products=fs.FirestoreProductRepository(db, cfg),
        categories=fs.FirestoreCategoryRepository(db, cfg),
        carts=fs.FirestoreCartRepository(db, cfg),
        orders=fs.FirestoreOrderRepository(db, cfg),
        promos=fs.FirestorePromoRepository(db, cfg),
        users=fs.FirestoreUserRepository(db, cfg),
        otps=fs.FirestoreOtpRepository(db, cfg),
        sms=build_sms_gateway(cfg),
        events=events,
        notifier=FanoutNotifier(events, FcmOrderNotifier(get_firebase_app(cfg))),
    )


def build_services(cfg: Settings) -> ServiceContainer:
    if cfg.storage_backend == "memory":
        return build_memory_services(cfg)
    return build_firestore_services(cfg)


def get_services(request: Request) -> ServiceContainer:
    """FastAPI dependency."""
    return request.app.state.services
