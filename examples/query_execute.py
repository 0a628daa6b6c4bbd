import hs2client
import os

with hs2client.connect(
    os.getenv("HS2_HOST"),
    port=int(os.getenv("HS2_PORT", "10000")),
    username=os.getenv("HS2_USER"),
    max_rows=1000,
) as connection:

    with connection.cursor() as cursor:
        cursor.execute("SELECT * FROM default.sample_07 LIMIT 10").result()
        cursor.wait_until_done().result()

        for column in cursor.get_schema().result():
            print(column.column_name, column.type)

        while True:
            block = cursor.fetch_block().result()
            for row in block.rows:
                print(row)
            if not block.has_more_rows:
                break
