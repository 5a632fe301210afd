#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from ordercore.data.models.product import ProductModel
from ordercore.data.models.cart import CartModel
from ordercore.data.models.cart_item import CartItemModel
from ordercore.data.models.order import OrderModel
from ordercore.data.models.order_line import OrderLineModel

__all__ = ["ProductModel", "CartModel", "CartItemModel", "OrderModel", "OrderLineModel"]
