from databricks.labs.qualtrics_connector.interface.lakeflow_connect import LakeflowConnect

__all__ = ["LakeflowConnect"]
