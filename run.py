# run.py
import uvicorn
import logging
logging.basicConfig(level=logging.INFO)
logging.getLogger("automation").setLevel(logging.DEBUG)
logging.getLogger("messaging").setLevel(logging.INFO)

uvicorn.run("ruleflow.main:app", host="0.0.0.0", port=8080, reload=False)
