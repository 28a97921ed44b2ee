from pymongo import MongoClient
import os
from dotenv import load_dotenv

load_dotenv()

MONGO_URL = os.getenv("MONGO_URL")
MONGO_DB = os.getenv("MONGO_DB", "milkdb")
RATE_CHART_PATH = os.getenv("RATE_CHART_PATH", "data/milk_rate_chart.xlsx")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

client = MongoClient(MONGO_URL)
db = client[MONGO_DB]
milk_production_collection = db["milk_production"]

# procurement point collections
mpp_collection = db["mpp_milk_collections"]
