from sqlalchemy import (CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, String, Text,
                        func)
from sqlalchemy.orm import DeclarativeBase


# Это базовый класс для всех моделей.
# Модели описывают схему для миграций Alembic; в рантайме запросы идут через asyncpg (storage.py).
class Base(DeclarativeBase):
    pass


# --- Модель таблицы Users ---
class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(100), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    role = Column(String(10), nullable=False, server_default='buyer')
    first_name = Column(String(100), nullable=False, server_default='')
    last_name = Column(String(100), nullable=False, server_default='')
    phone = Column(String(20), nullable=False, server_default='')
    address = Column(String(255), nullable=False, server_default='')
    avatar = Column(Text, nullable=False, server_default='')
    # NULL: у пользователя нет магазина
    shop_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


# --- Модель таблицы Shops ---
class Shop(Base):
    __tablename__ = 'shops'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False, server_default='')
    logo = Column(String(255), nullable=False, server_default='')
    address = Column(String(255), nullable=False, server_default='')
    # Связь с владельцем. unique=True: один магазин на пользователя
    user_id = Column(Integer, ForeignKey('users.id'), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)


# --- Модель таблицы Products ---
class Product(Base):
    __tablename__ = 'products'
    __table_args__ = (
        CheckConstraint('price >= 0', name='ck_products_price_non_negative'),
        CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False, server_default='')
    price = Column(Float, nullable=False)
    stock = Column(Integer, nullable=False, server_default='0')
    image = Column(String(255), nullable=False, server_default='')
    category = Column(String(50), nullable=False, server_default='', index=True)
    status = Column(String(20), nullable=False, server_default='available')
    shop_id = Column(Integer, ForeignKey('shops.id'), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    # Мягкое удаление: если не NULL, товара нет в каталоге
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)
