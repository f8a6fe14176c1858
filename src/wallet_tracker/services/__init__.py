__all__ = [
    "get_current_user_id",
    "set_current_user_id",
    "clear_session",
    "sign_out",
    "create_user",
    "get_user_by_email",
    "get_user_by_id",
    "authenticate_user",
    "sign_in",
    "register_user",
    "get_categories",
    "get_category_by_name",
    "create_category",
    "get_or_create_category_by_name",
    "update_category",
    "delete_category",
    "count_category_transactions",
    "get_category_usage_counts",
    "get_transactions",
    "add_transaction",
    "update_transaction",
    "delete_transaction",
    "get_transactions_by_category",
    "reassign_category",
    "filter_transactions",
    "get_total_balance",
]

from wallet_tracker.services.session_service import (
    get_current_user_id,
    set_current_user_id,
    clear_session,
    sign_out,
)
from wallet_tracker.services.user_service import (
    create_user,
    get_user_by_email,
    get_user_by_id,
    authenticate_user,
    sign_in,
    register_user,
)
from wallet_tracker.services.category_service import (
    get_categories,
    get_category_by_name,
    create_category,
    get_or_create_category_by_name,
    update_category,
    delete_category,
    count_category_transactions,
    get_category_usage_counts,
)
from wallet_tracker.services.transaction_service import (
    get_transactions,
    add_transaction,
    update_transaction,
    delete_transaction,
    get_transactions_by_category,
    reassign_category,
    filter_transactions,
    get_total_balance,
)
