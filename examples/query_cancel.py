import hs2client
import os, time

"""
The current operation of a cursor may be cancelled by calling its `.cancel()` method as shown in the example below.
Statements run asynchronously on the server, so the cursor is free to send the cancellation while the query runs.
"""

with hs2client.connect(os.getenv("HS2_HOST"),
                       username=os.getenv("HS2_USER"),
                       log_strategy="fetch_results") as connection:

  with connection.cursor() as cursor:
    print("\n Beginning to execute long query")
    cursor.execute("SELECT COUNT(*) FROM default.web_logs A CROSS JOIN default.web_logs B").result()

    print("\n Waiting 15 seconds before canceling", end="", flush=True)
    for _ in range(15):
      print(".", end="", flush=True)
      time.sleep(1)

    print("\n Server log so far:")
    print(cursor.get_log().result())

    print("\n Cancelling the cursor's operation.")
    cursor.cancel().result()

    print("\n Now checking the operation status:")
    print(cursor.get_operation_status().result())
    cursor.close().result()

    print("\n Now reusing the cursor to run a separate query.")
    cursor.execute("SELECT 1, 2, 3").result()
    cursor.wait_until_done().result()

    print("\n Execution was successful. Results appear below:")
    print(cursor.fetch_all().result())
