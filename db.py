from pymongo import MongoClient
from pymongo.errors import PyMongoError

import config
from logger import log

# Keep trying to send operations for 10 seconds, close idle sockets after 45
client = MongoClient(config.MONGODB_URI, serverSelectionTimeoutMS=10000, socketTimeoutMS=45000)

# Try to connect and ping the cluster
try:
    client.admin.command("ping")
    log.info("Successfully connected to MongoDB")
except PyMongoError as e:
    log.error("MongoDB connection error: %s", e)

# Access your database
db = client[config.MONGODB_DB]

CHANNEL_PARTNERS = "channelpartners"
CUSTOMERS = "customers"
LEGACY_USERS = "users"
PROMO_IMAGES = "promoimages"
