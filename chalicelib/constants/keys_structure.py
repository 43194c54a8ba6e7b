users_pk = 'users'
users_sk = '{user_id}'

users_email_pk = 'users_email'
users_email_sk = '{email}'

tokens_pk = 'auth_tokens'
tokens_sk = '{token_digest}'

franchises_pk = 'franchises'
franchises_sk = '{franchise_id}'

franchise_names_pk = 'franchise_names'
franchise_names_sk = '{name}'

stores_pk = 'stores_{franchise_id}'
stores_sk = '{store_id}'

menu_items_pk = 'menu'
menu_items_sk = '{menu_item_id}'

orders_pk = 'orders_{diner_id}'
orders_sk = '{date_created}_{order_id}'
