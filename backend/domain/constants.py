"""
Domain constants used across services/routers.
"""

# Midtrans transaction_status values
TX_CAPTURE = "capture"
TX_SETTLEMENT = "settlement"
TX_CANCEL = "cancel"
TX_EXPIRE = "expire"
TX_DENY = "deny"

# Midtrans fraud_status values
FRAUD_ACCEPT = "accept"

# Body status_code the status API returns for an unknown transaction
GATEWAY_NOT_FOUND_CODE = "404"
