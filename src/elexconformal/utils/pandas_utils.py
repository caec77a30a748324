def _key_tuples(df, on):
    return df[on].agg(tuple, 1)


def semi_join(df1, df2, on):
    """
    Semi-join. Returns all elements in df1 that match in df2 by on
    """
    if df1.empty or df2.empty:
        return df1.iloc[0:0].reset_index(drop=True)
    return df1[_key_tuples(df1, on).isin(_key_tuples(df2, on))].reset_index(drop=True)


def anti_join(df1, df2, on):
    """
    Anti-join. Returns all elements in df1 that have no match in df2 by on
    """
    if df1.empty or df2.empty:
        return df1.reset_index(drop=True)
    return df1[~_key_tuples(df1, on).isin(_key_tuples(df2, on))].reset_index(drop=True)
