import hs2client
import os
import logging


logger = logging.getLogger("hs2client")
logger.setLevel(logging.DEBUG)
fh = logging.FileHandler("hs2clientlogs.log")
fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(process)d %(thread)d %(message)s"))
fh.setLevel(logging.DEBUG)
logger.addHandler(fh)

with hs2client.connect(
    os.getenv("HS2_HOST"),
    username=os.getenv("HS2_USER"),
    max_rows=500,
) as connection:

    with connection.cursor() as cursor:
        print("executing query: SELECT * FROM default.sample_08")
        cursor.execute("SELECT * FROM default.sample_08").result()
        cursor.wait_until_done().result()
        try:
            has_more_rows, table = cursor.fetch_arrow_block().result()
            while has_more_rows:
                print(table)
                has_more_rows, table = cursor.fetch_arrow_block().result()
        except hs2client.FetchError as e:
            print(f"error: {e}")
