from dotenv import load_dotenv

# Load .env before anything reads the environment: settings, the API key
# check and the spaCy model name are all taken from os.environ.
load_dotenv()
