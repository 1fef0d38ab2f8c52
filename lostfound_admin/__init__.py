"""Lost & Found admin security backend"""
