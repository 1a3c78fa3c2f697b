# Infra package - startup resources for the blog server
#
# Modules:
# - config: Application settings
# - errors: Startup error hierarchy
# - logging: Structured logging sink
# - database: Relational database handle (SQLite, MySQL, PostgreSQL)
# - cache: Redis client
# - bootstrap: Ordered initialization and fail-fast exit
