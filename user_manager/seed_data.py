"""Fixed sample dataset used by the seed endpoint and the setup command."""

DEFAULT_ADMIN = {
    "first_name": "Admin",
    "last_name": "User",
    "email": "admin@example.com",
    "password": "admin123",
    "role": "admin",
    "status": "active",
}

DUMMY_USERS = [
    {
        "first_name": "John", "last_name": "Smith", "email": "john.smith@example.com",
        "password": "password123", "role": "user", "status": "active",
        "phone": "555-0101", "address": "12 Oak Street", "city": "Springfield", "state": "IL", "zip_code": "62701",
    },
    {
        "first_name": "Jane", "last_name": "Doe", "email": "jane.doe@example.com",
        "password": "password123", "role": "user", "status": "active",
        "phone": "555-0102", "address": "48 Maple Avenue", "city": "Portland", "state": "OR", "zip_code": "97201",
    },
    {
        "first_name": "Bob", "last_name": "Johnson", "email": "bob.johnson@example.com",
        "password": "password123", "role": "user", "status": "active",
        "phone": "555-0103", "address": "7 Pine Road", "city": "Austin", "state": "TX", "zip_code": "73301",
    },
    {
        "first_name": "Alice", "last_name": "Lee", "email": "alice.lee@example.com",
        "password": "password123", "role": "user", "status": "active",
        "phone": "555-0104", "address": "301 Cedar Lane", "city": "Seattle", "state": "WA", "zip_code": "98101",
    },
    {
        "first_name": "Carlos", "last_name": "Garcia", "email": "carlos.garcia@example.com",
        "password": "password123", "role": "user", "status": "inactive",
        "phone": "555-0105", "address": "95 Birch Court", "city": "Miami", "state": "FL", "zip_code": "33101",
    },
    {
        "first_name": "Emily", "last_name": "Chen", "email": "emily.chen@example.com",
        "password": "password123", "role": "user", "status": "active",
        "phone": "555-0106", "address": "220 Elm Street", "city": "San Jose", "state": "CA", "zip_code": "95101",
    },
    {
        "first_name": "Michael", "last_name": "Brown", "email": "michael.brown@example.com",
        "password": "password123", "role": "user", "status": "active",
        "phone": "555-0107", "address": "14 Walnut Drive", "city": "Denver", "state": "CO", "zip_code": "80201",
    },
    {
        "first_name": "Sarah", "last_name": "Wilson", "email": "sarah.wilson@example.com",
        "password": "password123", "role": "user", "status": "inactive",
        "phone": "555-0108", "address": "66 Spruce Way", "city": "Boston", "state": "MA", "zip_code": "02108",
    },
    {
        "first_name": "David", "last_name": "Martinez", "email": "david.martinez@example.com",
        "password": "password123", "role": "admin", "status": "active",
        "phone": "555-0109", "address": "3 Aspen Place", "city": "Phoenix", "state": "AZ", "zip_code": "85001",
    },
    {
        "first_name": "Admin", "last_name": "User", "email": "admin@example.com",
        "password": "admin123", "role": "admin", "status": "active",
    },
]
