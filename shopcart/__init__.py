"""shopcart - session and account shopping carts over Redis and Supabase."""

__version__ = "0.1.0"
