from retailpos.models.user import User
from retailpos.models.refresh_token import RefreshToken
from retailpos.models.activity import UserActivity
from retailpos.models.product import Category, Product, ProductQuantityHistory
from retailpos.models.sales import Sale, SaleItem
from retailpos.models.order import Order, OrderItem
from retailpos.models.expense import Expense
