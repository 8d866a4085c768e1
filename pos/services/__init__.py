# Services package.
#
# ``base`` holds the generic cache-aside query pipeline and the command
# pipeline; every other module specialises them for one entity:
#
#   user_service         — users (password hashing, unique email)
#   role_service         — roles
#   category_service     — categories (slug, image cleanup)
#   merchant_service     — merchants (+ lookup by owning user)
#   product_service      — products (+ by merchant / by category name)
#   cashier_service      — cashiers (+ by merchant)
#   order_service        — orders
#   order_item_service   — order items, read side only (+ by order)
#   transaction_service  — transactions (+ by merchant / by order)
#   auth_service         — register, login, token refresh, current user,
#                          forgotten-password reset
#   stats_service        — monthly / yearly sales figures per cashier,
#                          category, order and transaction outcome
#
# Services receive their repositories already bound to the request's
# AsyncSession, so the router layer controls the transaction boundary via
# the ``get_db`` dependency.
