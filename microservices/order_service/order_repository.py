"""
Order Repository

Data access layer for orders, pickup branches and seller aggregates.
Matches schema: marketplace.orders, marketplace.branches, marketplace.seller_stats
"""

from typing import Optional, List, Dict, Any
import logging

from core.config import InfraConfig
from core.postgres_client import PostgresClientWrapper, get_postgres_client
from .models import Branch, DeliveryMode, Order, OrderStatus, SellerStats

logger = logging.getLogger(__name__)


class OrderRepository:
    """
    Repository for order data operations

    Every status change is a compare-and-set on the stored status.
    """

    def __init__(self, config: Optional[InfraConfig] = None, db: Optional[PostgresClientWrapper] = None):
        """Initialize Order Repository with the shared PostgreSQL client"""
        self.db = db or get_postgres_client("order_service", config=config)

        self.schema = "marketplace"
        self.orders_table = "orders"
        self.branches_table = "branches"
        self.stats_table = "seller_stats"

        logger.info("OrderRepository initialized with PostgresClient")

    @property
    def _orders(self) -> str:
        return f"{self.schema}.{self.orders_table}"

    async def create_order(self, order: Order) -> Order:
        """Persist a new order"""
        try:
            query = f'''
                INSERT INTO {self._orders} (
                    order_id, buyer_id, seller_id, product_id, product_title,
                    quantity, unit_price, total, status, delivery_mode,
                    delivery_address, branch_id, qr_code, qr_secret_token,
                    pickup_code, notes, payment_method, created_at, updated_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17, NOW(), NOW())
                RETURNING *
            '''
            params = [
                order.order_id,
                order.buyer_id,
                order.seller_id,
                order.product_id,
                order.product_title,
                order.quantity,
                order.unit_price,
                order.total,
                order.status.value,
                order.delivery_mode.value,
                order.delivery_address,
                order.branch_id,
                order.qr_code,
                order.qr_secret_token,
                order.pickup_code,
                order.notes,
                order.payment_method,
            ]

            async with self.db:
                result = await self.db.query_row(query, params)

            return self._row_to_order(result)

        except Exception as e:
            logger.error(f"Error creating order {order.order_id}: {e}")
            raise

    async def get_order(self, order_id: str) -> Optional[Order]:
        """Get order by ID"""
        try:
            query = f"SELECT * FROM {self._orders} WHERE order_id = $1"

            async with self.db:
                result = await self.db.query_row(query, [order_id])

            return self._row_to_order(result) if result else None

        except Exception as e:
            logger.error(f"Error getting order {order_id}: {e}")
            raise

    async def list_orders(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Order]:
        """List orders, newest first"""
        try:
            conditions = []
            params: List[Any] = []
            param_count = 0

            if buyer_id:
                param_count += 1
                conditions.append(f"buyer_id = ${param_count}")
                params.append(buyer_id)

            if seller_id:
                param_count += 1
                conditions.append(f"seller_id = ${param_count}")
                params.append(seller_id)

            if status:
                param_count += 1
                conditions.append(f"status = ${param_count}")
                params.append(status.value)

            where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
            query = f'''
                SELECT * FROM {self._orders}
                {where_clause}
                ORDER BY created_at DESC
                LIMIT ${param_count + 1} OFFSET ${param_count + 2}
            '''
            params.extend([limit, offset])

            async with self.db:
                results = await self.db.query(query, params)

            return [self._row_to_order(row) for row in results]

        except Exception as e:
            logger.error(f"Error listing orders: {e}")
            raise

    async def update_order_status(
        self,
        order_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        qr_code: Optional[str] = None,
        qr_secret_token: Optional[str] = None,
        pickup_code: Optional[str] = None,
        payment_method: Optional[str] = None
    ) -> Optional[Order]:
        """Move an order to new_status if it is still in expected_status"""
        try:
            query = f'''
                UPDATE {self._orders}
                SET status = $3,
                    qr_code = COALESCE($4, qr_code),
                    qr_secret_token = COALESCE($5, qr_secret_token),
                    pickup_code = COALESCE($6, pickup_code),
                    payment_method = COALESCE($7, payment_method),
                    updated_at = NOW()
                WHERE order_id = $1 AND status = $2
                RETURNING *
            '''
            params = [
                order_id,
                expected_status.value,
                new_status.value,
                qr_code,
                qr_secret_token,
                pickup_code,
                payment_method,
            ]

            async with self.db:
                result = await self.db.query_row(query, params)

            return self._row_to_order(result) if result else None

        except Exception as e:
            logger.error(f"Error updating order {order_id} to {new_status.value}: {e}")
            raise

    async def mark_delivered(self, order_id: str, expected_status: OrderStatus) -> Optional[Order]:
        """Move an order to DELIVERED and add it to the seller aggregate in one transaction"""
        try:
            update_query = f'''
                UPDATE {self._orders}
                SET status = $3, updated_at = NOW()
                WHERE order_id = $1 AND status = $2
                RETURNING *
            '''
            stats_query = f'''
                INSERT INTO {self.schema}.{self.stats_table}
                    (seller_id, total_sales, total_revenue, products_sold, last_updated)
                VALUES ($1, 1, $2, $3, NOW())
                ON CONFLICT (seller_id) DO UPDATE SET
                    total_sales = {self.stats_table}.total_sales + 1,
                    total_revenue = {self.stats_table}.total_revenue + EXCLUDED.total_revenue,
                    products_sold = {self.stats_table}.products_sold + EXCLUDED.products_sold,
                    last_updated = NOW()
            '''

            async with self.db:
                async with self.db.transaction() as conn:
                    row = await conn.fetchrow(
                        update_query, order_id, expected_status.value, OrderStatus.DELIVERED.value
                    )
                    if row is None:
                        return None
                    await conn.execute(stats_query, row["seller_id"], row["total"], row["quantity"])

            return self._row_to_order(dict(row))

        except Exception as e:
            logger.error(f"Error marking order {order_id} delivered: {e}")
            raise

    async def get_branch(self, branch_id: str) -> Optional[Branch]:
        """Get branch by ID"""
        try:
            query = f"SELECT * FROM {self.schema}.{self.branches_table} WHERE branch_id = $1"

            async with self.db:
                result = await self.db.query_row(query, [branch_id])

            return self._row_to_branch(result) if result else None

        except Exception as e:
            logger.error(f"Error getting branch {branch_id}: {e}")
            raise

    async def get_first_active_branch(self) -> Optional[Branch]:
        """Oldest active branch"""
        try:
            query = f'''
                SELECT * FROM {self.schema}.{self.branches_table}
                WHERE is_active = TRUE
                ORDER BY created_at ASC
                LIMIT 1
            '''

            async with self.db:
                result = await self.db.query_row(query)

            return self._row_to_branch(result) if result else None

        except Exception as e:
            logger.error(f"Error getting active branch: {e}")
            raise

    async def list_active_branches(self) -> List[Branch]:
        """Active branches by name, with the number of orders routed to each"""
        try:
            query = f'''
                SELECT b.*, COUNT(o.order_id) AS order_count
                FROM {self.schema}.{self.branches_table} b
                LEFT JOIN {self._orders} o ON o.branch_id = b.branch_id
                WHERE b.is_active = TRUE
                GROUP BY b.branch_id
                ORDER BY b.name ASC
            '''

            async with self.db:
                results = await self.db.query(query)

            return [self._row_to_branch(row) for row in results]

        except Exception as e:
            logger.error(f"Error listing branches: {e}")
            raise

    async def create_branch(self, branch: Branch) -> Branch:
        """Persist a new branch"""
        try:
            query = f'''
                INSERT INTO {self.schema}.{self.branches_table}
                    (branch_id, name, address, phone, email, is_active, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, NOW())
                RETURNING *
            '''
            params = [
                branch.branch_id,
                branch.name,
                branch.address,
                branch.phone,
                branch.email,
                branch.is_active,
            ]

            async with self.db:
                result = await self.db.query_row(query, params)

            logger.info(f"Created branch {branch.branch_id}")
            return self._row_to_branch(result)

        except Exception as e:
            logger.error(f"Error creating branch {branch.branch_id}: {e}")
            raise

    async def list_branch_orders(self, branch_id: str, status: OrderStatus) -> List[Order]:
        """Orders of a branch in one status, oldest first"""
        try:
            query = f'''
                SELECT * FROM {self._orders}
                WHERE branch_id = $1 AND status = $2
                ORDER BY created_at ASC
            '''

            async with self.db:
                results = await self.db.query(query, [branch_id, status.value])

            return [self._row_to_order(row) for row in results]

        except Exception as e:
            logger.error(f"Error listing {status.value} orders of branch {branch_id}: {e}")
            raise

    async def get_seller_stats(self, seller_id: str) -> Optional[SellerStats]:
        """Get seller aggregate"""
        try:
            query = f"SELECT * FROM {self.schema}.{self.stats_table} WHERE seller_id = $1"

            async with self.db:
                result = await self.db.query_row(query, [seller_id])

            if not result:
                return None

            return SellerStats(
                seller_id=result["seller_id"],
                total_sales=result["total_sales"],
                total_revenue=result["total_revenue"],
                products_sold=result["products_sold"],
                last_updated=result.get("last_updated"),
            )

        except Exception as e:
            logger.error(f"Error getting stats for seller {seller_id}: {e}")
            raise

    def _row_to_order(self, row: Dict[str, Any]) -> Order:
        """Convert database row to Order model"""
        return Order(
            order_id=row["order_id"],
            buyer_id=row["buyer_id"],
            seller_id=row["seller_id"],
            product_id=row["product_id"],
            product_title=row["product_title"],
            quantity=row["quantity"],
            unit_price=row["unit_price"],
            total=row["total"],
            status=OrderStatus(row["status"]),
            delivery_mode=DeliveryMode(row["delivery_mode"]),
            delivery_address=row.get("delivery_address"),
            branch_id=row.get("branch_id"),
            qr_code=row.get("qr_code"),
            qr_secret_token=row.get("qr_secret_token"),
            pickup_code=row.get("pickup_code"),
            notes=row.get("notes"),
            payment_method=row.get("payment_method"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def _row_to_branch(self, row: Dict[str, Any]) -> Branch:
        return Branch(
            branch_id=row["branch_id"],
            name=row["name"],
            address=row.get("address"),
            phone=row.get("phone"),
            email=row.get("email"),
            is_active=row["is_active"],
            created_at=row.get("created_at"),
            order_count=row.get("order_count"),
        )
