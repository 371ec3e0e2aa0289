"""
Inventory Repository

Data access layer for product stock using the shared asyncpg pool.
Matches schema: marketplace.products (orders read for sales counts)
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from core.config import InfraConfig
from core.postgres_client import PostgresClientWrapper, get_postgres_client

from .models import SOLD_ORDER_STATUSES, ProductSales, ProductStock

logger = logging.getLogger(__name__)


class InventoryRepository:
    """
    Repository for product stock operations.

    Tables:
        - marketplace.products: product catalog, owns the stock counter
        - marketplace.orders: read-only, for sales counts
    """

    def __init__(self, config: Optional[InfraConfig] = None, db: Optional[PostgresClientWrapper] = None):
        """Initialize Inventory Repository with the shared PostgreSQL client"""
        self.db = db or get_postgres_client("inventory_service", config=config)
        self.schema = "marketplace"
        self.products_table = "products"
        self.orders_table = "orders"
        logger.info("InventoryRepository initialized with PostgresClient")

    @property
    def _table(self) -> str:
        return f'"{self.schema}".{self.products_table}'

    async def get_product(self, product_id: str) -> Optional[ProductStock]:
        """Get stock view of a product"""
        try:
            query = f'''
                SELECT product_id, seller_id, title, price, stock, is_active, updated_at
                FROM {self._table}
                WHERE product_id = $1
            '''
            async with self.db:
                result = await self.db.query_row(query, [product_id])
            return self._to_product(result) if result else None

        except Exception as e:
            logger.error(f"Failed to get product {product_id}: {e}")
            raise

    async def decrement_stock(self, product_id: str, quantity: int) -> Optional[int]:
        """Atomically decrement stock when the product is active and has enough units"""
        try:
            query = f'''
                UPDATE {self._table}
                SET stock = stock - $2, updated_at = NOW()
                WHERE product_id = $1 AND is_active = TRUE AND stock >= $2
                RETURNING stock
            '''
            async with self.db:
                result = await self.db.query_row(query, [product_id, quantity])
            return result["stock"] if result else None

        except Exception as e:
            logger.error(f"Failed to decrement stock for {product_id}: {e}")
            raise

    async def increment_stock(self, product_id: str, quantity: int) -> Optional[int]:
        """Atomically increment stock"""
        try:
            query = f'''
                UPDATE {self._table}
                SET stock = stock + $2, updated_at = NOW()
                WHERE product_id = $1
                RETURNING stock
            '''
            async with self.db:
                result = await self.db.query_row(query, [product_id, quantity])
            return result["stock"] if result else None

        except Exception as e:
            logger.error(f"Failed to increment stock for {product_id}: {e}")
            raise

    async def set_stock(self, product_id: str, stock: int) -> Optional[int]:
        """Set stock to an absolute value"""
        try:
            query = f'''
                UPDATE {self._table}
                SET stock = $2, updated_at = NOW()
                WHERE product_id = $1
                RETURNING stock
            '''
            async with self.db:
                result = await self.db.query_row(query, [product_id, stock])
            return result["stock"] if result else None

        except Exception as e:
            logger.error(f"Failed to set stock for {product_id}: {e}")
            raise

    async def list_low_stock(self, seller_id: str, threshold: int) -> List[ProductStock]:
        """Active products of a seller running low, lowest stock first"""
        try:
            query = f'''
                SELECT product_id, seller_id, title, price, stock, is_active, updated_at
                FROM {self._table}
                WHERE seller_id = $1 AND is_active = TRUE AND stock > 0 AND stock <= $2
                ORDER BY stock ASC
            '''
            async with self.db:
                results = await self.db.query(query, [seller_id, threshold])
            return [self._to_product(row) for row in results]

        except Exception as e:
            logger.error(f"Failed to list low stock products for {seller_id}: {e}")
            raise

    async def list_out_of_stock(self, seller_id: str) -> List[ProductStock]:
        """Active products of a seller with no stock, most recently updated first"""
        try:
            query = f'''
                SELECT product_id, seller_id, title, price, stock, is_active, updated_at
                FROM {self._table}
                WHERE seller_id = $1 AND is_active = TRUE AND stock = 0
                ORDER BY updated_at DESC
            '''
            async with self.db:
                results = await self.db.query(query, [seller_id])
            return [self._to_product(row) for row in results]

        except Exception as e:
            logger.error(f"Failed to list out of stock products for {seller_id}: {e}")
            raise

    async def list_product_sales(self, seller_id: str, since: datetime) -> List[ProductSales]:
        """Active products of a seller with the count of sold orders since a point in time"""
        try:
            query = f'''
                SELECT p.product_id, p.seller_id, p.title, p.price, p.stock, p.is_active, p.updated_at,
                       COUNT(o.order_id) AS orders_sold
                FROM {self._table} p
                LEFT JOIN "{self.schema}".{self.orders_table} o
                    ON o.product_id = p.product_id
                    AND o.created_at >= $2
                    AND o.status = ANY($3::text[])
                WHERE p.seller_id = $1 AND p.is_active = TRUE
                GROUP BY p.product_id
                ORDER BY p.title ASC
            '''
            async with self.db:
                results = await self.db.query(query, [seller_id, since, list(SOLD_ORDER_STATUSES)])
            return [
                ProductSales(**self._to_product(row).model_dump(), orders_sold=row["orders_sold"])
                for row in results
            ]

        except Exception as e:
            logger.error(f"Failed to list product sales for {seller_id}: {e}")
            raise

    def _to_product(self, row: Dict[str, Any]) -> ProductStock:
        return ProductStock(
            product_id=row["product_id"],
            seller_id=row["seller_id"],
            title=row["title"],
            price=row["price"],
            stock=row["stock"],
            is_active=row["is_active"],
            updated_at=row.get("updated_at"),
        )
