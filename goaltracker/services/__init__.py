"""Database-facing services. Each function takes the Prisma client as its first argument."""
